"""
모의 보유 원장 (Holdings Ledger) 모듈.

[ 역할 ]
    백테스트 1회 실행 동안의 현금, 보유 기록(Holding), 수수료, 실현 손익을 관리.
    백테스트 엔진이 매수/매도 시 이 클래스를 통해 상태를 갱신.

[ 수수료 ]
    매수 시 매수 수수료 (매수가*수량*수수료율) 차감
    매도 시 매도 수수료 (매도가*수량*수수료율) 차감
    Holding.profit = (매도가-매수가)*수량 - (매도가+매수가)*수량*수수료율

[ 원장 항등식 ]
    현금 + 보유 원가 합계 + 누적 수수료 - 누적 매매차익(수수료 전) = 시작 금액
    balance_identity()가 좌변을 계산한다.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine (매수/매도 반영)
    - backtest/metrics.py (closed_holdings로 성과 계산)
"""

from datetime import date
from typing import Any

from signal_backtest.core.stores import Holding

LOT_SIZE = 100


def calculate_position_size(
    cash: float,
    open_slots: int,
    price: float,
    fee_rate: float = 0.0,
    lot_size: int = LOT_SIZE,
    fee_safe: bool = False,
) -> int:
    """1회 매수 수량 계산 (lot_size 단위).

    amount = floor(cash / (open_slots * price * lot_size)) * lot_size
    수수료는 수량 계산에 넣지 않으므로 매수 후 현금이 수수료만큼 음수가 될 수 있다.
    fee_safe=True면 수수료 포함 금액이 현금 이하가 될 때까지 한 lot씩 줄인다.
    """
    if cash <= 0 or open_slots <= 0 or price <= 0:
        return 0

    amount = int(cash // (open_slots * price * lot_size)) * lot_size
    if fee_safe:
        while amount > 0 and amount * price * (1 + fee_rate) > cash:
            amount -= lot_size
    return max(amount, 0)


class Portfolio:
    """모의 보유 원장.

    BacktestEngine이 실행마다 새로 만든다.
    open_positions는 종목별 리스트 (추가 매수 허용 시 한 종목에 여러 건).
    """

    def __init__(self, start_balance: float, fee_rate: float):
        self.start_balance = start_balance
        self.fee_rate = fee_rate
        self.cash = start_balance                             # 가용 현금
        self.total_fees = 0.0                                 # 누적 수수료 (매수+매도)
        self.realized_gross = 0.0                             # 누적 (매도가-매수가)*수량
        self.realized_profit = 0.0                            # 누적 Holding.profit (수수료 차감)
        self.open_positions: dict[str, list[Holding]] = {}    # code → 미청산 보유
        self.closed_holdings: list[Holding] = []              # 청산 순서대로
        self.max_open_count = 0

    # ─── 조회 ──────────────────────────────────────────────────────

    @property
    def open_count(self) -> int:
        return sum(len(v) for v in self.open_positions.values())

    @property
    def open_cost(self) -> float:
        return sum(h.cost_basis for v in self.open_positions.values() for h in v)

    @property
    def open_buy_fees(self) -> float:
        return self.open_cost * self.fee_rate

    @property
    def total_value(self) -> float:
        """시작 금액 + 실현 손익 - 미청산 매수 수수료 (= 현금 + 보유 원가)."""
        return self.start_balance + self.realized_profit - self.open_buy_fees

    @property
    def transaction_count(self) -> int:
        return len(self.closed_holdings) + self.open_count

    def holdings_of(self, code: str) -> list[Holding]:
        return self.open_positions.get(code, [])

    def is_holding(self, code: str) -> bool:
        return bool(self.open_positions.get(code))

    def balance_identity(self) -> float:
        """현금 + 보유 원가 + 누적 수수료 - 누적 매매차익. 항상 시작 금액과 같아야 한다."""
        return self.cash + self.open_cost + self.total_fees - self.realized_gross

    # ─── 매수/매도 ──────────────────────────────────────────────────

    def open_position(self, holding: Holding) -> float:
        """매수 반영. 매수 수수료 반환.

        매수 원가는 현금 이하여야 한다. 수수료는 현금을 음수로 만들 수 있다.

        Raises:
            ValueError: 매수 원가가 현금 초과
        """
        fee = holding.cost_basis * self.fee_rate
        if holding.cost_basis > self.cash:
            raise ValueError(
                f"현금 부족: 필요 {holding.cost_basis:,.2f}, 보유 {self.cash:,.2f} ({holding.stock_code})"
            )

        self.cash -= holding.cost_basis + fee
        self.total_fees += fee
        self.open_positions.setdefault(holding.stock_code, []).append(holding)
        self.max_open_count = max(self.max_open_count, self.open_count)
        return fee

    def close_position(self, holding: Holding, sell_price: float, sell_date: date) -> float:
        """매도 반영. 실현 손익(수수료 차감) 반환."""
        positions = self.open_positions.get(holding.stock_code, [])
        if holding not in positions:
            raise ValueError(f"미청산 보유 기록이 아닙니다: id={holding.id}")

        profit = holding.close(sell_price, sell_date, self.fee_rate)
        sell_fee = sell_price * holding.amount * self.fee_rate

        self.cash += sell_price * holding.amount - sell_fee
        self.total_fees += sell_fee
        self.realized_gross += (sell_price - holding.buy_price) * holding.amount
        self.realized_profit += profit

        positions.remove(holding)
        if not positions:
            del self.open_positions[holding.stock_code]
        self.closed_holdings.append(holding)
        return profit

    def get_summary(self) -> dict[str, Any]:
        return {
            "start_balance": self.start_balance,
            "cash": self.cash,
            "open_count": self.open_count,
            "open_cost": self.open_cost,
            "total_fees": self.total_fees,
            "realized_profit": self.realized_profit,
            "total_value": self.total_value,
            "transaction_count": self.transaction_count,
        }
