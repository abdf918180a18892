import logging

from passbook.errors import UnsupportedFormat
from passbook.models import BankParser, DetectionResult, ParseResult

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.3


class ParserRegistry:
    def __init__(self):
        self._parsers: list[BankParser] = []

    def register(self, parser: BankParser) -> None:
        """Append a parser. Registration order breaks ties between equal scores."""
        if self.get_by_key(parser.key) is not None:
            raise ValueError(f"Parser already registered: {parser.key}")
        self._parsers.append(parser)

    def get_by_key(self, key: str) -> BankParser | None:
        for parser in self._parsers:
            if parser.key == key:
                return parser
        return None

    def list_all(self) -> list[BankParser]:
        return list(self._parsers)

    def bank_names(self) -> list[str]:
        names: list[str] = []
        for parser in self._parsers:
            if parser.name not in names:
                names.append(parser.name)
        return names

    def scores(self, content: str, filename: str) -> list[tuple[BankParser, float]]:
        return [(parser, parser.score(content, filename)) for parser in self._parsers]

    def detect(self, content: str, filename: str) -> DetectionResult | None:
        """Pick the highest-scoring parser, or None if nothing reaches the threshold."""
        best: DetectionResult | None = None
        for parser, confidence in self.scores(content, filename):
            if confidence > (best.confidence if best else 0.0):
                best = DetectionResult(parser=parser, confidence=confidence)
        if best is None or best.confidence < CONFIDENCE_THRESHOLD:
            logger.info("No parser matched %s", filename)
            return None
        logger.info("Detected %s for %s (confidence %.2f)", best.parser.key, filename, best.confidence)
        return best

    def parse(self, content: str, filename: str) -> tuple[BankParser, ParseResult]:
        result = self.detect(content, filename)
        if result is None:
            raise UnsupportedFormat(self.bank_names())
        return result.parser, result.parser.parse(content)


registry = ParserRegistry()
