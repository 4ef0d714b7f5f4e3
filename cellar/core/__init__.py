"""
纯计算核心：分装、混酿、用量换算、库存检查
不依赖 Flask 和数据库，输入输出都是 cellar.core.records 中的记录
"""
