"""HTTP surface of the Social Pulse relay (FastAPI)"""
