# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   user_service     registration, login, sparse profile updates
#   profile_service  public profiles and the follow relation
#   article_service  listing / feed, CRUD, favorites, tags
#   comment_service  comments scoped to an article
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``conduit.errors``
# exceptions.
