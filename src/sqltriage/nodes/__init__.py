"""Workflow nodes and the pure functions behind them."""
