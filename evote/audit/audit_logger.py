# evote/audit/audit_logger.py

import os
import json
import hashlib
import base64
import logging
import threading
from datetime import datetime
from queue import Queue, Empty, Full
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives import serialization

from evote.errors import AuditError

logger = logging.getLogger(__name__)

# Audit sink: every state-changing operation is appended to a hash-chained,
# Ed25519-signed JSON lines file. Writes happen on a background worker so a
# slow or failing disk never holds up a vote.


class AuditLogger:
    def __init__(self, log_dir='logs', asynchronous=True, max_queue_size=10000, signing_key_pem=None):
        self.log_dir = log_dir
        self.log_file = os.path.join(log_dir, 'audit.log')
        self.previous_hash = None
        self.asynchronous = asynchronous
        self._lock = threading.Lock()
        self._metrics_lock = threading.Lock()

        os.makedirs(log_dir, exist_ok=True)

        if signing_key_pem:
            self.signing_key = serialization.load_pem_private_key(signing_key_pem.encode(), password=None)
        else:
            self.signing_key = Ed25519PrivateKey.generate()
        self._load_previous_hash()

        self.metrics = {"events_received": 0, "events_written": 0, "events_dropped": 0}
        self.event_queue = Queue(maxsize=max_queue_size)
        self.worker = None
        if asynchronous:
            self.running = True
            self.worker = threading.Thread(target=self._process_queue, name='audit-writer')
            self.worker.daemon = True
            self.worker.start()

    def _count(self, name):
        # Updated from request threads and the writer thread alike
        with self._metrics_lock:
            self.metrics[name] += 1

    def _load_previous_hash(self):
        if os.path.exists(self.log_file):
            with open(self.log_file, 'r') as f:
                lines = [line for line in f.readlines() if line.strip()]
                if lines:
                    try:
                        last_entry = json.loads(lines[-1])
                        self.previous_hash = last_entry.get('hash')
                    except ValueError:
                        self.previous_hash = None

    def record(self, action, entity_type, actor_id=None, entity_id=None,
               old_values=None, new_values=None, origin=None, actor_email=None):
        """Queue an audit record. Returns False if it had to be dropped; never raises."""
        try:
            entry = {
                "timestamp": datetime.utcnow().isoformat(),
                "action": action,
                "entity_type": entity_type,
                "entity_id": str(entity_id) if entity_id is not None else None,
                "actor_id": str(actor_id) if actor_id is not None else None,
                "actor_email": actor_email,
                "old_values": old_values,
                "new_values": new_values,
                "ip_address": (origin or {}).get('ip'),
                "user_agent": (origin or {}).get('user_agent'),
            }
            self._count("events_received")
            if not self.asynchronous:
                self._write_entry(entry)
                return True
            self.event_queue.put_nowait(entry)
            return True
        except Full:
            logger.warning("Audit queue full - dropping %s event", action)
            self._count("events_dropped")
            return False
        except AuditError as e:
            logger.error(str(e))
            return False
        except Exception as e:
            logger.error(f"Audit log error: {str(e)}")
            return False

    def _write_entry(self, entry):
        try:
            with self._lock:
                log_entry = dict(entry)
                log_entry["previous_hash"] = self.previous_hash
                entry_json = json.dumps(log_entry, sort_keys=True, default=str)
                entry_hash = hashlib.sha256(entry_json.encode()).hexdigest()

                signature = self.signing_key.sign(entry_json.encode())
                # Re-load so the stored values are exactly what was hashed
                log_entry = json.loads(entry_json)
                log_entry['hash'] = entry_hash
                log_entry['signature'] = base64.b64encode(signature).decode()

                with open(self.log_file, 'a') as f:
                    f.write(json.dumps(log_entry) + "\n")

                self.previous_hash = entry_hash
                self._count("events_written")
        except Exception as e:
            raise AuditError(f"Failed to write audit entry {entry.get('action')}: {e}")

    def _process_queue(self):
        while self.running:
            try:
                entry = self.event_queue.get(timeout=0.1)
            except Empty:
                continue
            try:
                self._write_entry(entry)
            except AuditError as e:
                logger.error(str(e))
            finally:
                self.event_queue.task_done()

    def flush(self):
        """Block until every queued record has been written."""
        if self.asynchronous:
            self.event_queue.join()

    def shutdown(self):
        if self.worker is not None:
            self.flush()
            self.running = False
            self.worker.join(timeout=5.0)

    def verify_log_integrity(self):
        self.flush()
        try:
            if not os.path.exists(self.log_file):
                return True
            previous_hash = None
            public_key = self.signing_key.public_key()
            with open(self.log_file, 'r') as f:
                for line in f:
                    if not line.strip():
                        continue
                    log_entry = json.loads(line)
                    if log_entry.get('previous_hash') != previous_hash:
                        return False
                    entry_copy = dict(log_entry)
                    signature = base64.b64decode(entry_copy.pop('signature'))
                    stored_hash = entry_copy.pop('hash')
                    entry_json = json.dumps(entry_copy, sort_keys=True).encode()
                    if hashlib.sha256(entry_json).hexdigest() != stored_hash:
                        return False
                    public_key.verify(signature, entry_json)
                    previous_hash = stored_hash
            return True
        except Exception:
            return False

    def read_entries(self):
        self.flush()
        entries = []
        if not os.path.exists(self.log_file):
            return entries
        with open(self.log_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except ValueError:
                    # If a line isn't valid JSON, include raw line
                    entries.append({'raw': line})
        return entries

    def query(self, page=1, limit=10, user=None, action=None, start_date=None, end_date=None):
        """Filter and paginate audit entries, newest first. Returns ``(entries, total)``."""
        entries = list(reversed(self.read_entries()))

        def keep(entry):
            if 'raw' in entry:
                return False
            if user:
                needle = user.lower()
                actor = (entry.get('actor_id') or '').lower()
                email = (entry.get('actor_email') or '').lower()
                if needle != actor and needle not in email:
                    return False
            if action and action.lower() not in (entry.get('action') or '').lower():
                return False
            stamp = entry.get('timestamp') or ''
            if start_date and stamp < start_date.isoformat():
                return False
            if end_date and stamp > end_date.isoformat():
                return False
            return True

        matching = [e for e in entries if keep(e)]
        skip = (page - 1) * limit
        return matching[skip:skip + limit], len(matching)
