# Delete the lock only when it still holds the caller's token.
# param: KEYS[1] - lock key
# param: ARGV[1] - ownership token
# returns: 1 if deleted, otherwise 0
COMPARE_AND_DELETE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""

# Reset the lock expiry only when it still holds the caller's token.
# The new expiry replaces the old one, it is not added to it.
# param: KEYS[1] - lock key
# param: ARGV[1] - ownership token
# param: ARGV[2] - new expiry in milliseconds
# returns: 1 if extended, otherwise 0
COMPARE_AND_EXTEND_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('pexpire', KEYS[1], ARGV[2])
else
    return 0
end
"""
