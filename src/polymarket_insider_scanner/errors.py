"""Exception hierarchy shared by the scanner layers."""


class ScannerError(Exception):
    """Base exception for all scanner errors."""


class SourceError(ScannerError):
    """Raised when the market/trade feed cannot be read."""


class OracleError(ScannerError):
    """Raised when wallet or holder data cannot be fetched."""


class AnalyzerError(ScannerError):
    """Raised when the suspicion analyzer call fails."""


class MalformedAnalysisError(AnalyzerError):
    """Raised when the analyzer returns data that cannot be validated."""
