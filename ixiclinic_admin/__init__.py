"""IxiClinic admin API"""
