"""Buy bot services"""
