class AnalysisError(Exception):
    """Base error for anything that stops a photo from being analysed."""


class ImageError(AnalysisError):
    pass


class MissingApiKeyError(AnalysisError):
    pass


class ProviderError(AnalysisError):
    def __init__(self, message, provider=None, status=None):
        super().__init__(message)
        self.provider = provider
        self.status = status


class ModelNotFoundError(ProviderError):
    pass


class ProviderTimeoutError(ProviderError):
    pass


class ProviderConnectionError(ProviderError):
    pass


class SchemaNotSupportedError(ProviderError):
    pass


class EmptyResponseError(AnalysisError):
    pass


class NutritionParseError(AnalysisError):
    def __init__(self, message, raw=None):
        super().__init__(message)
        self.raw = raw
