"""构建步骤"""
