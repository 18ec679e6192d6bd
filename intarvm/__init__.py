"""Cloud-init seeds, step scripts, image caching, QEMU arguments and a LAN switch for lab VMs."""

__version__ = "0.1.0"