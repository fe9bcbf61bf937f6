"""microsaas: event distribution and history pipeline of the SAAS backend."""
