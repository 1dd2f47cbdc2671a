# This module handles Context engineering

#  +---------------------+
# |      Catalog        |   (Static, loaded once, read-only)
# |---------------------|
# | Action names        |
# | Required arguments  |
# | Optional arguments  |
# +---------------------+

# +---------------------+
# |  Continuation state |   (Per session, short-lived)
# |---------------------|
# | System prompt       |
# | Selected actions    |
# | Original question   |
# | Created at          |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled per request)
# |------------------------------|
# | Selected actions (<= 60)     |
# | Response format rules        |
# | Last N conversation turns    |
# | Current user turn            |
# +------------------------------+
#         |
#         v
#   [Completion service]
