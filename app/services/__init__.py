# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# the business rules for one concern:
#
#   article_service  — filtered listing, feed, CRUD and favorites for Article
#   comment_service  — comments and the comment ownership guard
#   profile_service  — profiles and follow / unfollow
#   user_service     — registration, login, refresh / logout, user updates
#   token_service    — access / refresh token records (TokenLifecycleManager)
#   slug             — unique slug generation over an existence check
#
# Service functions take an AsyncSession as their first argument and the
# caller's identity as an explicit parameter; the router layer owns the
# transaction boundary via the ``get_db`` dependency.
