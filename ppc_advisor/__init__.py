"""
PPC advisor: bounded recommendation sessions for paid-search accounts
"""
