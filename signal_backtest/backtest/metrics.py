"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    백테스트 결과(청산된 보유 기록 + 일별 총 가치)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 계산하는 지표 ]
    - 총 수익률 / 연환산 수익률
    - 샤프 비율, MDD (최대 낙폭)
    - 승률, 평균 수익/손실, 수익 팩터, 연속 승/패
    - 평균 보유 기간
    - 최대 동시 보유 수, 누적 실현 손익의 최고/최저

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest() 완료 시 호출

[ 입력 데이터 ]
    - closed_holdings: data/portfolio.py::Portfolio.closed_holdings
    - daily_values: 엔진이 매일 기록한 총 가치 (시작 금액 + 실현 손익 - 미청산 매수 수수료)
    - daily_profits: 엔진이 매일 기록한 누적 실현 손익
"""

from dataclasses import asdict, dataclass
from datetime import date
from typing import Any, Optional

import numpy as np

from signal_backtest.core.stores import Holding


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    run_generation: int = 0
    strategy_type: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_balance: float = 0.0
    final_cash: float = 0.0
    total_profit: float = 0.0           # 누적 실현 손익 (수수료 차감)
    total_fees: float = 0.0
    transaction_count: int = 0          # 매수 건수 (청산 + 미청산)
    open_holdings: int = 0              # 종료 시점 미청산 건수
    total_return: float = 0.0           # 총 수익률 (%)
    annual_return: float = 0.0          # 연환산 수익률 (%)
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0           # 최대 낙폭 MDD (%)
    win_rate: float = 0.0               # 승률 (%)
    avg_profit: float = 0.0             # 수익 거래 평균 이익
    avg_loss: float = 0.0               # 손실 거래 평균 손실
    profit_factor: float = 0.0          # 총이익 / 총손실
    total_trades: int = 0               # 청산 거래 수
    winning_trades: int = 0
    losing_trades: int = 0
    avg_holding_days: float = 0.0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0
    max_concurrent_holdings: int = 0
    max_profit: float = 0.0             # 누적 실현 손익 최고치
    min_profit: float = 0.0             # 누적 실현 손익 최저치

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            f"백테스트 성과 리포트 (전략 {self.strategy_type}, 회차 {self.run_generation})",
            f"기간: {self.start_date} ~ {self.end_date}",
            "=" * 50,
            f"시작 금액:       {self.start_balance:>14,.2f}",
            f"종료 현금:       {self.final_cash:>14,.2f}",
            f"실현 손익:       {self.total_profit:>14,.2f}",
            f"누적 수수료:     {self.total_fees:>14,.2f}",
            f"총 수익률:       {self.total_return:>10.2f}%",
            f"연환산 수익률:    {self.annual_return:>10.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>10.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>10.2f}%",
            "-" * 50,
            f"매수 건수:       {self.transaction_count:>10d}",
            f"청산 거래:       {self.total_trades:>10d}",
            f"미청산 보유:     {self.open_holdings:>10d}",
            f"승률:            {self.win_rate:>10.2f}%",
            f"평균 수익:       {self.avg_profit:>14,.2f}",
            f"평균 손실:       {self.avg_loss:>14,.2f}",
            f"수익 팩터:       {self.profit_factor:>10.2f}",
            f"평균 보유 일수:  {self.avg_holding_days:>10.1f}",
            "-" * 50,
            f"최대 연속 수익:  {self.max_consecutive_wins:>10d}",
            f"최대 연속 손실:  {self.max_consecutive_losses:>10d}",
            f"최대 동시 보유:  {self.max_concurrent_holdings:>10d}",
            f"최고 누적 손익:  {self.max_profit:>14,.2f}",
            f"최저 누적 손익:  {self.min_profit:>14,.2f}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_metrics(
    closed_holdings: list[Holding],
    daily_values: list[float],
    daily_profits: list[float],
    start_balance: float,
    trading_days: int,
) -> BacktestMetrics:
    """성과 지표 계산. engine.py에서 백테스트 완료 후 호출됨.

    실행 정보(회차, 기간, 현금 등)는 호출부가 채운다.
    """
    metrics = BacktestMetrics(start_balance=start_balance)

    if daily_profits:
        metrics.max_profit = max(0.0, max(daily_profits))
        metrics.min_profit = min(0.0, min(daily_profits))

    if not daily_values or start_balance <= 0:
        return metrics

    # ─── 수익률 계산 ─────────────────────────────────────────────────────
    final_value = daily_values[-1]
    metrics.total_return = (final_value - start_balance) / start_balance * 100

    if trading_days > 0 and final_value > 0:
        years = trading_days / 252
        metrics.annual_return = ((final_value / start_balance) ** (1 / years) - 1) * 100

    # ─── 샤프 비율 ────────────────────────────────────────────────────────
    values = np.array(daily_values, dtype=float)
    if len(values) > 1:
        prev = values[:-1]
        returns_arr = np.diff(values)[prev > 0] / prev[prev > 0]
        excess_returns = returns_arr - 0.03 / 252
        if len(excess_returns) and np.std(excess_returns) > 0:
            metrics.sharpe_ratio = float(np.mean(excess_returns) / np.std(excess_returns) * np.sqrt(252))

    # ─── MDD ──────────────────────────────────────────────────────────────
    peaks = np.maximum.accumulate(values)
    drawdowns = np.where(peaks > 0, (peaks - values) / peaks * 100, 0.0)
    metrics.max_drawdown = float(drawdowns.max())

    # ─── 거래 기반 지표 (청산된 보유만) ────────────────────────────────────
    metrics.total_trades = len(closed_holdings)
    if not closed_holdings:
        return metrics

    profits = [h.profit for h in closed_holdings]
    winners = [p for p in profits if p > 0]
    losers = [p for p in profits if p <= 0]

    metrics.winning_trades = len(winners)
    metrics.losing_trades = len(losers)
    metrics.win_rate = len(winners) / len(profits) * 100

    if winners:
        metrics.avg_profit = sum(winners) / len(winners)
    if losers:
        metrics.avg_loss = sum(losers) / len(losers)

    total_loss = abs(sum(losers))
    metrics.profit_factor = sum(winners) / total_loss if total_loss > 0 else float("inf")

    metrics.avg_holding_days = float(np.mean([(h.sell_date - h.buy_date).days for h in closed_holdings]))

    # 연속 승패
    consecutive_wins = consecutive_losses = 0
    for p in profits:
        if p > 0:
            consecutive_wins += 1
            consecutive_losses = 0
            metrics.max_consecutive_wins = max(metrics.max_consecutive_wins, consecutive_wins)
        else:
            consecutive_losses += 1
            consecutive_wins = 0
            metrics.max_consecutive_losses = max(metrics.max_consecutive_losses, consecutive_losses)

    return metrics
