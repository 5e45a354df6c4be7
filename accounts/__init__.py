"""Account core: credential and single-use token lifecycle."""
