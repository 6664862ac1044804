"""
Members app: marketplace identities, loyalty points and badges.

Related apps:
    - store: orders reference members as buyers and sellers
    - payments: settlement awards loyalty points; the outbox worker
      delivers badge checks
"""
