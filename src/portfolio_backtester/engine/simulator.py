import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional

from ..config import BacktestConfig, EngineSettings
from ..data.provider import HistoricalSeriesProvider, PriceBook
from ..results import PortfolioSnapshot
from .calendar import iter_month_dates
from .cashflows import allocate_by_target, allocate_toward_target, assumed_dividend, is_rebalance_month
from .ledger import CASH_TICKER, MonthlyTransaction, TransactionLedger

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")
FUNDING_SOURCES = ("contribution", "dividends", "reserve")


def split_funding(cost: Decimal, pool: Dict[str, Decimal]) -> Dict[str, Decimal]:
    """Charge `cost` to the month's cash sources in proportion to their size.

    Every purchase of the month sees the same proportions, so the split does not
    depend on the order the assets are bought in. The largest source takes the
    rounding remainder, which keeps the parts summing to `cost` exactly.
    """
    total = sum(pool.values(), ZERO)
    if total <= 0:
        return {"contribution": ZERO, "dividends": ZERO, "reserve": cost}
    largest = max(FUNDING_SOURCES, key=lambda s: pool[s])
    funding = {s: cost * pool[s] / total for s in FUNDING_SOURCES if s != largest}
    funding[largest] = cost - sum(funding.values(), ZERO)
    return funding


@dataclass
class SimulationState:
    cash_balance: Decimal = ZERO
    holdings: Dict[str, Decimal] = field(default_factory=dict)
    total_invested: Decimal = ZERO       # initial capital + contributions
    total_contributed: Decimal = ZERO    # contributions only
    total_dividends_received: Decimal = ZERO

    def holdings_value(self, prices: Dict[str, Decimal]) -> Decimal:
        return sum((shares * prices[t] for t, shares in self.holdings.items()), ZERO)

    def value(self, prices: Dict[str, Decimal]) -> Decimal:
        return self.holdings_value(prices) + self.cash_balance


@dataclass(frozen=True)
class SimulationOutput:
    ledger: TransactionLedger
    evolution: List[PortfolioSnapshot]
    final_state: SimulationState
    carried_prices: int = 0


class MonthlySimulator:
    def __init__(self, provider: HistoricalSeriesProvider, settings: Optional[EngineSettings] = None):
        self.provider = provider
        self.settings = settings or EngineSettings()

    def simulate(self, config: BacktestConfig, effective_start: date, effective_end: date) -> SimulationOutput:
        """
        Replay [effective_start, effective_end] one calendar month at a time.

        Month 0 spends the initial capital by target allocation. Every later month adds the
        contribution, pays dividends, then buys: on rebalance boundaries all cash is steered
        toward the target weights, otherwise only the month's new cash is split by target.
        Returns the ledger, one snapshot per month and the final state.
        """
        tickers = config.tickers()
        weights = config.weights()
        book = PriceBook(self.provider, tickers, effective_end)
        state = SimulationState(holdings={t: ZERO for t in tickers})
        ledger = TransactionLedger()
        evolution: List[PortfolioSnapshot] = []
        prev_value = ZERO

        logger.info("Simulating %s from %s to %s (%s rebalance)",
                    ",".join(tickers), effective_start, effective_end, config.rebalance_frequency)

        for m, as_of in enumerate(iter_month_dates(effective_start, effective_end)):
            prices = {t: book.price(t, as_of) for t in tickers}
            reserve = state.cash_balance

            # 1) external cash
            inflow = config.initial_capital if m == 0 else config.monthly_contribution
            if inflow > 0:
                state.cash_balance += inflow
                state.total_invested += inflow
                if m > 0:
                    state.total_contributed += inflow
                self._record(ledger, state, prices, m, as_of, CASH_TICKER, "CASH_CREDIT",
                             amount=inflow, price=ONE, shares=ZERO, month_inflow=inflow)

            # 2) dividends
            dividends = ZERO
            if m > 0:
                dividends = self._pay_dividends(config, book, state, ledger, prices, m, as_of, inflow)

            # 3) decide how the cash is split
            boundary = is_rebalance_month(m, config.rebalance_frequency)
            if boundary:
                values = {t: state.holdings[t] * prices[t] for t in tickers}
                amounts = allocate_toward_target(state.cash_balance, values, weights)
            else:
                amounts = allocate_by_target(min(inflow + dividends, state.cash_balance), weights)

            # 4) buy; the carried reserve is only spent on boundaries
            pool = {"contribution": inflow, "dividends": dividends, "reserve": reserve if boundary else ZERO}
            kind = "REBALANCE_PURCHASE" if boundary else "PURCHASE"
            for t in tickers:
                self._buy(ledger, state, prices, pool, m, as_of, t, amounts[t], kind, inflow)

            # 5) mark to market
            value = state.value(prices)
            if m == 0 or prev_value <= 0:
                monthly_return = 0.0
            else:
                monthly_return = float((value - inflow) / prev_value - ONE)
            evolution.append(PortfolioSnapshot(
                date=as_of,
                value=value,
                holdings=dict(state.holdings),
                prices=dict(prices),
                monthly_return=monthly_return,
                contribution=inflow,
                dividends=dividends,
                cash_balance=state.cash_balance,
            ))
            prev_value = value

        if book.carried_forward:
            logger.info("Carried %d prices forward over data gaps", book.carried_forward)
        logger.info("Simulation finished: %d months, final value %s, cash %s",
                    len(evolution), evolution[-1].value if evolution else ZERO, state.cash_balance)
        return SimulationOutput(ledger=ledger, evolution=evolution, final_state=state,
                                carried_prices=book.carried_forward)

    def _pay_dividends(self, config, book, state, ledger, prices, m, as_of, inflow) -> Decimal:
        paid = ZERO
        for asset in config.assets:
            t = asset.ticker
            shares = state.holdings[t]
            if shares <= 0:
                continue
            if book.uses_actual_dividends(t):
                amount = (shares * book.dividend_per_share(t, as_of)).quantize(
                    self.settings.money_quantum, rounding=ROUND_HALF_UP)
            else:
                amount = assumed_dividend(shares * prices[t], asset.average_dividend_yield,
                                          as_of.month, self.settings)
            if amount <= 0:
                continue
            state.cash_balance += amount
            state.total_dividends_received += amount
            paid += amount
            logger.debug("%s %s: dividend %s on %s shares", as_of.isoformat(), t, amount, shares)
            self._record(ledger, state, prices, m, as_of, t, "DIVIDEND_PAYMENT",
                         amount=amount, price=prices[t], shares=ZERO, month_inflow=inflow)
        return paid

    def _buy(self, ledger, state, prices, pool, m, as_of, ticker, amount, kind, inflow):
        price = prices[ticker]
        amount = min(amount, state.cash_balance)
        if amount <= 0 or price <= 0:
            return
        shares = (amount / price).quantize(self.settings.share_quantum, rounding=ROUND_DOWN)
        if shares <= 0:
            return
        cost = shares * price
        funding = split_funding(cost, pool)

        state.holdings[ticker] += shares
        state.cash_balance -= cost
        self._record(ledger, state, prices, m, as_of, ticker, kind,
                     amount=cost, price=price, shares=shares, month_inflow=inflow,
                     from_contribution=funding["contribution"],
                     from_dividends=funding["dividends"],
                     from_reserve=funding["reserve"])

    @staticmethod
    def _record(ledger, state, prices, m, as_of, ticker, kind, amount, price, shares, month_inflow,
                from_contribution=ZERO, from_dividends=ZERO, from_reserve=ZERO):
        ledger.append(MonthlyTransaction(
            month=m,
            date=as_of,
            ticker=ticker,
            transaction_type=kind,
            contribution=amount,
            price=price,
            shares_added=shares,
            total_shares=state.holdings.get(ticker, ZERO),
            total_invested=state.total_invested,
            total_contribution=month_inflow,
            portfolio_value=state.value(prices),
            cash_balance=state.cash_balance,
            from_contribution=from_contribution,
            from_dividends=from_dividends,
            from_reserve=from_reserve,
        ))
