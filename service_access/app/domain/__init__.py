"""
Domain logic: the admission pipeline, its rejections and the clock helpers.
"""
