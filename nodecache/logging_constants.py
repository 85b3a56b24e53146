# Flip these to get very verbose traces of every merge, modify & sweep:
TRACE_ENABLED = False
SUPER_DEBUG_ENABLED = False
