"""内置示例数据集脚本 (按方言分目录)"""
