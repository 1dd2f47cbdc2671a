# Continuation state = everything needed to resume an answer the model cut off.

# It is the exact prompt state of the truncated turn:

# The system prompt that was sent

# The actions that were selected into the context window

# The question that started the thread

# When it was stored, so stale threads can be swept
