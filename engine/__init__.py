"""账本引擎层（engine）。

- futures：杠杆合约仓位生命周期；
- spot_ledger：现货成交与平均成本持仓；
- simulator：持有账户状态的门面，所有写操作串行执行。
命令行入口由仓库根目录 `main.py` 统一承载。
"""
