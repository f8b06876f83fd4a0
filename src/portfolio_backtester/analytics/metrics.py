import numpy as np

def cagr(start_value: float, end_value: float, months: int) -> float:
    if start_value <= 0 or months <= 0:
        return 0.0
    years = months / 12.0
    return (end_value / start_value) ** (1 / years) - 1.0

def annualized_volatility(monthly_returns) -> float:
    r = np.asarray(monthly_returns, dtype=float)
    if r.size < 2:
        return 0.0
    return float(r.std(ddof=1) * np.sqrt(12))

def sharpe_ratio(annual_return: float, volatility: float, risk_free_rate: float, months: int):
    """Annualized excess return over annualized volatility; None when it is undefined."""
    if months < 2 or volatility <= 0 or not np.isfinite(volatility):
        return None
    excess = annual_return - risk_free_rate
    if not np.isfinite(excess):
        return None
    return float(excess / volatility)

def max_drawdown(values) -> float:
    """Largest (peak - value) / peak over the series, as a positive fraction."""
    x = np.asarray(values, dtype=float)
    if x.size == 0:
        return 0.0
    peak = np.maximum.accumulate(x)
    with np.errstate(divide='ignore', invalid='ignore'):
        dd = np.where(peak > 0, (peak - x) / peak, 0.0)
    return float(dd.max())

def count_signs(monthly_returns):
    r = np.asarray(monthly_returns, dtype=float)
    return int((r > 0).sum()), int((r < 0).sum())

def mwrr_irr(inflows, final_value: float):
    """Annualized money-weighted return of monthly external inflows and the final value."""
    import numpy_financial as npf
    flows = -np.asarray(inflows, dtype=float)
    if flows.size < 2 or not (flows < 0).any():
        return None
    flows[-1] += final_value
    try:
        irr_m = npf.irr(flows)
    except (ValueError, FloatingPointError):
        return None
    if irr_m is None or not np.isfinite(irr_m):
        return None
    return float((1.0 + irr_m) ** 12 - 1.0)
