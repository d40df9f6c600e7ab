CRON_SECRET = "unit-test-cron-secret"
CURRENT_SIGNING_KEY = "sig_current_0123456789abcdef0123456789"
NEXT_SIGNING_KEY = "sig_next_fedcba9876543210fedcba98765432"
