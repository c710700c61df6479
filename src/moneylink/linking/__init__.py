"""Linking flow: step machine, handshakes, previews, selection and commit."""
