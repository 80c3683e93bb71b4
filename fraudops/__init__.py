"""
FraudOps - workflow demandes, cycles de vie contrat et investigation fraude
"""
