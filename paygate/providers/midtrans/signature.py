from ...utils.security import sha512_hex


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    """SHA512(order_id + status_code + gross_amount + server_key), lowercase hex.

    ``gross_amount`` must be the string exactly as Midtrans sent it ("50000.00").
    """
    return sha512_hex(f"{order_id}{status_code}{gross_amount}{server_key}")
