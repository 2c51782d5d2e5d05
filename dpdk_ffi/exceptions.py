class DpdkBuildError(Exception):
    """ Base exception for all dpdk_ffi build errors."""


class ConfigurationError(DpdkBuildError):
    """ A required build setting is missing or invalid."""


class ExternalToolError(DpdkBuildError):
    """ pkg-config, the C compiler or the archiver failed."""

    def __init__(self, tool, diagnostic):
        super().__init__('{} failed: {}'.format(tool, diagnostic))
        self.tool = tool
        self.diagnostic = diagnostic


class UnrecognizedFlagError(DpdkBuildError):
    """ A flag token matched none of the known grammar rules."""

    def __init__(self, token):
        super().__init__('Unrecognized build flag: {}'.format(token))
        self.token = token


class BindingGenerationError(DpdkBuildError):
    """ The aggregator header could not be preprocessed or parsed."""
