"""
Fleet Monitor - 服务器集群健康数据中心

负责：
- 接收 Agent 推送的 CPU/内存/磁盘/网络指标并入库
- 按固定阈值自动判定错误样本
- 接收存储健康检查报告并维护每台服务器的最新报告
- 根据数据新鲜度（25 小时窗口）推导服务器在线状态
- 提供仪表盘聚合视图的 REST API
"""

__version__ = "1.0.0"
