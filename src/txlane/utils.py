import txlane.constants as C


def short_address(address: str | None) -> str:
    return f"{address[:6]}...{address[-4:]}" if address else "N/A"


def short_hash(tx_hash: str | None) -> str:
    if not tx_hash or not isinstance(tx_hash, str) or tx_hash == "0x":
        return C.INVALID_HASH
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


def leading_verb(description: str) -> str:
    return description.split(" ", 1)[0] if description else ""
