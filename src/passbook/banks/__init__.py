from passbook.banks.axis import axis
from passbook.banks.bob import bob
from passbook.banks.federal import federal
from passbook.banks.hdfc import hdfc_csv, hdfc_text
from passbook.banks.icici import icici
from passbook.banks.kotak import kotak
from passbook.banks.pnb import pnb
from passbook.banks.sbi import sbi
from passbook.banks.yes_bank import yes_bank
from passbook.registry import ParserRegistry

# Detection order. Earlier entries win equal scores.
BUILTIN_PARSERS = [
    hdfc_text,
    hdfc_csv,
    sbi,
    icici,
    axis,
    kotak,
    yes_bank,
    pnb,
    bob,
    federal,
]


def register_builtin(registry: ParserRegistry) -> None:
    for parser in BUILTIN_PARSERS:
        if registry.get_by_key(parser.key) is None:
            registry.register(parser)
