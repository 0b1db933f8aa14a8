"""
dms — Dead Man's Switch

운영자가 주기적으로 check-in 하지 않으면 저장된 secret을 recipients에게 전송.
"""

__version__ = "0.1.0"
