"""Storefront cart engine — cart consistency, coupons, pricing and checkout validation.

The engine keeps a client-held cart replica and a server-held authoritative
replica convergent across guest → authenticated transitions, and derives
cent-exact order totals from a cart plus an optional coupon.
"""

__version__ = "0.1.0"
