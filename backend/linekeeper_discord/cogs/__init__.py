"""Bot extensions"""
