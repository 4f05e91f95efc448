"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：回合的開放 / 待分配判斷與回合推進
- RewardPool：join / distribute / withdraw 的生命週期管理
- Substrate：時鐘與亂數來源（可替換）
- Locks：並發控制工具
"""
