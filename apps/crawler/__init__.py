"""
Crawler App - Checkpointed User Ingestion

Responsibilities:
- Walk the sequential user id space of the remote API in fixed-size batches
- Resolve every id in a batch concurrently (found / absent / failed)
- Retry transient failures with linear backoff (3 attempts)
- Append newly discovered users to a deduplicated JSON archive (atomic rewrite)
- Persist the last processed id after every batch so runs resume where they stopped
- Stop after 3 consecutive batches without any found user

Output:
- data/users.json: [{id, address, twitterUsername, twitterName}, ...]
- data/state.json: {"lastProcessedId": N}
"""
