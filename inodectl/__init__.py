"""Decoders for iNode BLE manufacturer specific data and GSM gateway batches."""
