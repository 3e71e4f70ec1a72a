class ServiceError(Exception):
    pass


class GeminiConfigurationError(ServiceError):
    pass


class GeminiPromptError(ServiceError):
    pass


class RateLimitedError(ServiceError):
    pass


class GenerationServiceError(ServiceError):
    pass


class InvalidGenerationOutputError(ServiceError):
    def __init__(self, reason: str, raw_text: str | None = None):
        super().__init__(f"Invalid generation output: {reason}")
        self.reason = reason
        self.raw_text = raw_text
