"""
AdSync API Routers.

Modules:
    dashboard – Dashboard summary counts
    entities  – Network / advertiser / campaign / advertisement / zone lists
    health    – Health check
    sync      – Manual sync trigger, bootstrap, sync status
"""
