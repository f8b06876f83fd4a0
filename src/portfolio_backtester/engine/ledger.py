from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Iterator, List, Literal, Optional

import pandas as pd

TransactionType = Literal["CASH_CREDIT", "DIVIDEND_PAYMENT", "PURCHASE", "REBALANCE_PURCHASE"]
CASH_TICKER = "CASH"
PURCHASE_TYPES = ("PURCHASE", "REBALANCE_PURCHASE")

ZERO = Decimal("0")


@dataclass(frozen=True)
class MonthlyTransaction:
    month: int
    date: date
    ticker: str
    transaction_type: TransactionType
    contribution: Decimal        # cash moved by this event (credit, dividend or purchase cost)
    price: Decimal
    shares_added: Decimal
    total_shares: Decimal        # for `ticker`, after the event
    total_invested: Decimal      # external money, portfolio-wide, cumulative
    total_contribution: Decimal  # external money added in this month
    portfolio_value: Decimal
    cash_balance: Decimal
    from_contribution: Decimal = ZERO
    from_dividends: Decimal = ZERO
    from_reserve: Decimal = ZERO

    @property
    def is_purchase(self) -> bool:
        return self.transaction_type in PURCHASE_TYPES


class TransactionLedger:
    """Append-only record of every simulated cash movement and purchase."""

    def __init__(self, entries: Optional[List[MonthlyTransaction]] = None):
        self._entries: List[MonthlyTransaction] = list(entries or [])

    def append(self, entry: MonthlyTransaction) -> None:
        if self._entries:
            last = self._entries[-1]
            if entry.month < last.month:
                raise ValueError(f"ledger entries must be in month order ({entry.month} after {last.month})")
        self._entries.append(entry)

    def __iter__(self) -> Iterator[MonthlyTransaction]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, i):
        return self._entries[i]

    def __eq__(self, other):
        return isinstance(other, TransactionLedger) and self._entries == other._entries

    @property
    def entries(self) -> tuple:
        return tuple(self._entries)

    def of_type(self, *types: str) -> List[MonthlyTransaction]:
        return [e for e in self._entries if e.transaction_type in types]

    def for_ticker(self, ticker: str) -> List[MonthlyTransaction]:
        return [e for e in self._entries if e.ticker == ticker]

    def to_frame(self) -> pd.DataFrame:
        """Ledger as a DataFrame, one row per entry, for export."""
        cols = list(MonthlyTransaction.__dataclass_fields__)
        return pd.DataFrame([asdict(e) for e in self._entries], columns=cols)
