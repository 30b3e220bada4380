"""
=============================================================================
규칙 기반 시그널 엔진 + 일봉 백테스트 (Signal Backtest)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py / run_recommend.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         ├── utils/cache.py         ← TTL 캐시 (메모/일봉/실행 잠금 공유)
         ├── utils/run_lock.py      ← 장기 작업 잠금
         │
         ├── tasks/                 ← 잠금 하에서 추천/백테스트 실행
         │
         ├── strategies/            ← 규칙 세트 1~7 (@register(ID)) + StrategyEngine
         │     ├── memo/extreme_growth.py   ← 급등 이력 매수 억제 (전략 1, 2, 3)
         │     └── indicators/              ← RSI, 캔들 형태, 구간 통계
         │
         └── backtest/engine.py     ← 하루 단위 모의 매매 루프
               │
               ├── data/portfolio.py    ← 현금/보유 원장
               └── backtest/metrics.py  ← 성과 지표 계산


[ 핵심 추상 클래스 (core/) ]

    core/trading_strategy.py → strategies/*.py (규칙 세트)
    core/data_provider.py    → ingestion/yahoo_finance.py::YahooFinanceProvider
    core/stores.py           → data/memory_store.py, data/clickhouse_store.py


[ 데이터 흐름 (백테스트) ]

    1. config.yaml에서 전략 ID, 종목, 백테스트 파라미터 로드
    2. BarStore에서 종목별 전체 일봉 로드, 시작일 기준으로 과거/미래 분할
    3. 하루씩 미래 봉을 공개하며 StrategyEngine이 매도 → 매수 판단
    4. Portfolio가 현금/보유 기록 갱신, HoldingsStore에 기록
    5. 종료 시 실행 회차 증가, BacktestResult 저장, 성과 지표 계산


[ 데이터 흐름 (실전 추천) ]

    1. MarketDataManager가 Yahoo Finance → BarStore 동기화
    2. 종목별 최신 일봉으로 evaluate_buy
    3. 매수 시그널 종목을 RecommendationStore에 (날짜, 전략) 단위로 교체 저장
"""
