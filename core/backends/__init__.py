"""
Reader device backends.

- mercury: ThingMagic Mercury API modules and readers (tmr:// URIs)
- llrp: LLRP fixed readers through sllurp (llrp:// URIs)
"""
