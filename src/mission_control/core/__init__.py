"""Mission Control Core -- 领域模型与持久化"""
