"""
FormHawk - Form Mutation & Audit Deduplication Engine
Version: 1.0.0

Turns discovered HTML forms into injection test variants:
- Best-effort form parsing with BeautifulSoup
- Payload, original-value and sample-value variants
- Scan-wide deduplication of equivalent audit targets
- Nonce refresh before submission
"""

__version__ = '1.0.0'
