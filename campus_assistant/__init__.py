"""Campus assistant backend: client registration and email OTP verification."""
