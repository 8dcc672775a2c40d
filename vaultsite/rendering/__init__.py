"""Page rendering for vaultsite exports."""
