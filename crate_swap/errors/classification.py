"""Classification of Solana simulation and send errors."""

import re
from typing import Optional


def is_blockhash_expired(error: Optional[str]) -> bool:
    if not error:
        return False
    lower = error.lower()
    return "blockhash" in lower or "blockhashnotfound" in lower


def describe_simulation_error(error: Optional[str]) -> Optional[str]:
    """Return a short, human-readable hint for common Solana simulation errors."""
    if not error:
        return None

    lower = error.lower()
    if "alreadyprocessed" in lower:
        return "Transaction already processed; likely duplicate or replayed."
    if "blockhash" in lower:
        return "Blockhash expired; re-validate the swap before submitting."
    if "accountinuse" in lower:
        return "Account in use; retry with backoff."
    if "insufficientfunds" in lower or "insufficient funds" in lower:
        return "Insufficient funds for fee or transfer."
    if "slippage" in lower or "0x1771" in lower:
        return "Price moved beyond the slippage tolerance; request a new quote."
    if "invalidaccountdata" in lower:
        return "Invalid account data; verify mint/account ownership."
    if "uninitializedaccount" in lower or "accountnotfound" in lower:
        return "Account not initialized; fund the wallet or create the token account."
    if "signatureverificationfailed" in lower:
        return "Signature verification failed; ensure signer and recent blockhash match."

    match = re.search(r"InstructionErrorCustom\((\d+)\)", error)
    if match:
        return f"Custom program error {match.group(1)}; program-specific constraint failed."
    return None


def classify_simulation_error(error: Optional[str]) -> str:
    """Classify an error as ``permanent``, ``retryable`` or ``unknown``."""
    if not error:
        return "unknown"

    lower = error.lower()
    if "alreadyprocessed" in lower:
        return "permanent"
    if is_blockhash_expired(error) or "accountinuse" in lower:
        return "retryable"
    if "timeout" in lower or "timed out" in lower:
        return "retryable"
    if "connection" in lower or "network" in lower:
        return "retryable"
    if "rate" in lower or "429" in lower or "503" in lower:
        return "retryable"
    if "insufficientfunds" in lower or "insufficient funds" in lower:
        return "permanent"
    if "invalidaccountdata" in lower or "uninitializedaccount" in lower:
        return "permanent"
    if "signatureverificationfailed" in lower:
        return "permanent"
    if "instructionerrorcustom" in lower or "custom program error" in lower:
        return "permanent"
    return "unknown"


def is_retryable_error(error: Optional[str]) -> bool:
    return classify_simulation_error(error) == "retryable"
