"""Account services: password policy, tokens and the credential lifecycle."""
