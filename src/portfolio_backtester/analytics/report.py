"""Summary statistics and per-asset attribution of a finished simulation."""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence

from ..config import BacktestConfig, EngineSettings
from ..engine.ledger import TransactionLedger
from ..results import AssetPerformance, BacktestResult, MonthlyReturn, PortfolioSnapshot
from .metrics import annualized_volatility, cagr, count_signs, max_drawdown, mwrr_irr, sharpe_ratio

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class MetricsCalculator:
    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    def summarize(self, ledger: TransactionLedger, evolution: Sequence[PortfolioSnapshot],
                  config: BacktestConfig) -> BacktestResult:
        """Derive the report from the ledger and the monthly snapshots. Pure; safe to call repeatedly."""
        if not evolution:
            raise ValueError("cannot summarize an empty simulation")

        total_invested = sum((e.contribution for e in ledger.of_type("CASH_CREDIT")), ZERO)
        total_dividends = sum((e.contribution for e in ledger.of_type("DIVIDEND_PAYMENT")), ZERO)
        last = evolution[-1]
        final_value = last.value
        months = len(evolution)

        if total_invested > 0:
            total_return = float(final_value / total_invested) - 1.0
        else:
            total_return = 0.0
        annualized = cagr(float(total_invested), float(final_value), months)

        returns = [s.monthly_return for s in evolution[1:]]
        volatility = annualized_volatility(returns)
        sharpe = sharpe_ratio(annualized, volatility, self.settings.risk_free_rate, months)
        drawdown = max_drawdown([float(s.value) for s in evolution])
        positive, negative = count_signs(returns)
        mwr = mwrr_irr([float(s.contribution) for s in evolution], float(final_value))

        logger.info("Summary: invested %s, final %s, total return %.2f%%, CAGR %.2f%%",
                    total_invested, final_value, total_return * 100, annualized * 100)

        return BacktestResult(
            total_return=total_return,
            annualized_return=annualized,
            volatility=volatility,
            sharpe_ratio=sharpe,
            max_drawdown=drawdown,
            positive_months=positive,
            negative_months=negative,
            total_invested=total_invested,
            final_value=final_value,
            final_cash_reserve=last.cash_balance,
            total_dividends_received=total_dividends,
            monthly_returns=[
                MonthlyReturn(date=s.date, monthly_return=s.monthly_return,
                              portfolio_value=s.value, contribution=s.contribution)
                for s in evolution[1:]
            ],
            portfolio_evolution=list(evolution),
            asset_performance=self._asset_performance(ledger, last, config),
            money_weighted_return=mwr,
            month_count=months,
            effective_start_date=evolution[0].date,
            effective_end_date=last.date,
        )

    @staticmethod
    def _asset_performance(ledger: TransactionLedger, last: PortfolioSnapshot,
                           config: BacktestConfig) -> List[AssetPerformance]:
        out = []
        for asset in config.assets:
            t = asset.ticker
            contribution = reinvestment = rebalance = spent = bought = dividends = ZERO
            for e in ledger.for_ticker(t):
                if e.transaction_type == "DIVIDEND_PAYMENT":
                    dividends += e.contribution
                    continue
                if not e.is_purchase:
                    continue
                # the carried reserve is leftover rounding of earlier purchases
                contribution += e.from_contribution + e.from_reserve
                reinvestment += e.from_dividends
                if e.transaction_type == "REBALANCE_PURCHASE":
                    rebalance += e.contribution
                spent += e.contribution
                bought += e.shares_added

            shares = last.holdings.get(t, ZERO)
            final_value = shares * last.prices.get(t, ZERO)
            out.append(AssetPerformance(
                ticker=t,
                allocation=asset.target_allocation,
                final_value=final_value,
                total_return=float(final_value / contribution) - 1.0 if contribution > 0 else 0.0,
                contribution=contribution,
                reinvestment=reinvestment,
                rebalance_amount=rebalance,
                average_price=spent / bought if bought > 0 else None,
                total_shares=shares,
                total_dividends=dividends,
            ))
        return out
